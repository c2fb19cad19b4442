"""
NFT collection contract ABI (read-only subset)

Only the view functions the reconciler calls are listed.
"""

# Order matters: struct outputs are decoded positionally
METADATA_COMPONENTS = [
    {"name": "fid", "type": "uint256"},
    {"name": "characterClass", "type": "string"},
    {"name": "classDescription", "type": "string"},
    {"name": "gender", "type": "string"},
    {"name": "background", "type": "string"},
    {"name": "backgroundDescription", "type": "string"},
    {"name": "colorPalette", "type": "string"},
    {"name": "colorVibe", "type": "string"},
    {"name": "clothing", "type": "string"},
    {"name": "accessories", "type": "string"},
    {"name": "items", "type": "string"},
    {"name": "mintedAt", "type": "uint256"},
]

# Contract field -> cached trait name
TRAIT_FIELDS = {
    "characterClass": "character_class",
    "classDescription": "class_description",
    "gender": "gender",
    "background": "background",
    "backgroundDescription": "background_description",
    "colorPalette": "color_palette",
    "colorVibe": "color_vibe",
    "clothing": "clothing",
    "accessories": "accessories",
    "items": "items",
}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _view(name, inputs, outputs):
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


NFT_CONTRACT_ABI = [
    _view(
        "ownerOf",
        [{"name": "tokenId", "type": "uint256"}],
        [{"name": "", "type": "address"}],
    ),
    _view(
        "tokenIdToFid",
        [{"name": "tokenId", "type": "uint256"}],
        [{"name": "", "type": "uint256"}],
    ),
    _view(
        "getMetadata",
        [{"name": "tokenId", "type": "uint256"}],
        [{"name": "", "type": "tuple", "components": METADATA_COMPONENTS}],
    ),
    _view(
        "getMetadataByFid",
        [{"name": "fid", "type": "uint256"}],
        [{"name": "", "type": "tuple", "components": METADATA_COMPONENTS}],
    ),
    _view(
        "totalSupply",
        [],
        [{"name": "", "type": "uint256"}],
    ),
]
