ROLE_ALUMNI = "alumni"
ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"
ROLES = (ROLE_ALUMNI, ROLE_STUDENT, ROLE_ADMIN)

JOB_TYPES = ("job", "internship")

CONNECTION_PENDING = "pending"
CONNECTION_STATUSES = (CONNECTION_PENDING, "accepted", "rejected")

# Error code the data service uses for unique-constraint violations
UNIQUE_VIOLATION = "23505"
# Error code for a row-level access rule rejecting the request
ACCESS_RULE_VIOLATION = "42501"
