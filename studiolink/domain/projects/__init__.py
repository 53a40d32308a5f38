"""Project domain - projects, their task checklist, revisions, deliverable files and sending"""
