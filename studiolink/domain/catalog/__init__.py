"""Catalog domain - service task templates and the task template resolver"""
