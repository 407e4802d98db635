"""Historical engine revisions, loaded through tapevm.registry."""
