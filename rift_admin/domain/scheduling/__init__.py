"""Scheduling domain - recurring session occurrence expansion"""
