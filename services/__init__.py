"""
Services package for the Mock Interview Analyzer.

This package contains service modules for external collaborators:
- Face++: remote face attribute analysis (server-held credentials)
- Azure Face API: remote face attribute analysis (optional)
- Azure Speech: speech recognition tokens for the browser
- Speech sentiment: keyword-based utterance classification
- Results store: versioned handoff of finished interview results
"""
