# AI Core module

"""
AI Core Module - topic identification and document writing.

Key responsibilities:
- Chat model construction (gen_ai_hub proxy or offline mock)
- Retried LLM calls
- Topic identification (analysis, then JSON formatting + matching)
- Document drafting and updating
"""
