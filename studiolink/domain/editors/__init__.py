"""Editor domain - the studio's post-production staff"""
