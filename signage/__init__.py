"""
Signage pairing service.

Flask application that pairs unattended display players to screen records
using short-lived activation codes or device QR codes, and issues the device
tokens players present on every subsequent request.
"""
