"""Discipline Rift admin backend: attendance reminders and email/SMS delivery"""
