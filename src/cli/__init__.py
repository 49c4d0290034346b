"""PPPoE Diag command-line front end"""
