"""
Natours API — Middleware Package
=================================

One module per pipeline stage. ``natours.pipeline.PipelineBuilder`` decides
their order; see ``natours.main.build_pipeline`` for the assembled chain:

    Request → [CORS] → [Static] → [Security Headers] → [Request Context]
            → [Access Log] → [Error Conversion] → [Rate Limit] → [Raw Body]
            → [Body Parser] → [Sanitization] → [GZip] → Router
"""
