"""GrooveForge: procedural composer for loop-based electronic dance music."""
