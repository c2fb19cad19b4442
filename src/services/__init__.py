"""Services: chain access, reconciliation jobs and cache read models"""
