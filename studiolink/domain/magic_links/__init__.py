"""Magic link domain - token issuance, read-time validation and the download page"""
