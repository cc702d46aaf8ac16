"""Quote grounding: verify claimed quotes against evidence text and revalidate stored pointers."""
