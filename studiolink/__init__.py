"""StudioLink - project delivery for a small photography studio"""
