"""Container runtime detection and diagnostics target resolution."""
