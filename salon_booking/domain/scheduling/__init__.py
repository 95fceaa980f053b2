"""
Scheduling Domain

Availability and booking for salon appointments.

- time_calculator.py: minute-of-day interval arithmetic
- availability_service.py: schedule resolver, busy-interval collector, slot generator
- appointment_status.py: appointment status state machine
- repository.py / service.py / router.py: persistence, booking workflow and HTTP endpoints
"""
