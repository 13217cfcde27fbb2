"""Messaging domain: message normalization, conversation assembly and delivery.

The service lives in ``nightvibe.domain.chat.service``; it is not re-exported here
because user-record helpers import this package's models.
"""
