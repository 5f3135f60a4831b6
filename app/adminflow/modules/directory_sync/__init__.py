"""
Directory Sync module.

Keeps external membership directories (GitHub organization, Slack workspace)
in line with the set of active local users:
- One client contract, one implementation per directory (clients/)
- A reconciler that adds first, then removes, and never mutates anything when
  the member list could not be fetched
- Admin-triggered runs recorded as DirectorySyncRun rows plus audit events
"""
