"""
Registrations module.

- Public registration form creates a PendingRegistration (admin is emailed)
- Admins approve or reject; approval creates an active User and attempts to add
  the GitHub username to the organization
- Applicants are emailed the decision
"""
