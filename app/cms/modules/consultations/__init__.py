"""
Consultation bookings submitted from the public site and worked by staff.
"""
