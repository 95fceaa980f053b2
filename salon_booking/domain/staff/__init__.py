"""
Staff Domain

Administration of the reference data the scheduling domain reads:
working hours, absences and service skills.
"""
