"""VM Monitor: status dashboard and recreate control for one Proxmox guest."""
