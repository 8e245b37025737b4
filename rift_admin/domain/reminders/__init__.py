"""Reminders domain - attendance gap finding and reminder runs"""
