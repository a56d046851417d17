"""Guest-side access: SSH command channel and PowerShell queries."""
