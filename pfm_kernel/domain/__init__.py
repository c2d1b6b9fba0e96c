"""Pure kernel domain: clock and record snapshots.  ZERO I/O."""
