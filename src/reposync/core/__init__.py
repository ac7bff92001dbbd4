"""Core sync engine: VCS adapter, lock, flows, orchestrator and lifecycle."""
