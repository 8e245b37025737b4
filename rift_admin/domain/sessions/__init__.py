"""Sessions domain - today's practice schedule and rosters"""
