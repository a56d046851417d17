"""Proxmox VE API access: ticket sessions, authenticated calls, task waits."""
