"""Client domain - the studio's customers"""
