"""SMS domain - Twilio delivery for marketing messages"""
