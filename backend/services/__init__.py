"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - ride_management: Ride lifecycle, seat accounting and ratings
    - messaging: Chat room registry and message relay
"""
