"""Inbound mail relay webhooks"""
