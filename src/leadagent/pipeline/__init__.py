"""Chat pipeline — orchestration and result formatting."""
