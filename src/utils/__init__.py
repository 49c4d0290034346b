"""PPPoE Diag shared utilities"""
