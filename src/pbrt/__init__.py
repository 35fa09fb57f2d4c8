"""Python front end for the pbrt scene-description format.

This package parses pbrt scene files into a fully-resolved, immutable
in-memory scene description, with support for:
- Lazy tokenization with per-file line tracking
- Typed parameter lists with arity validation
- Nested graphics state (transforms, materials, media, area lights)
- Include/Import splicing across files
- Named materials, media, coordinate systems, textures and object instancing

Subpackages:
    core: Tokenizer, parameter decoding, transform math and error types
    scene: Scene entities, graphics state stack and scene builder
    parser: Include-aware token stream and the statement dispatcher
"""

__version__ = "0.1.0"
