"""
prodrag - Prompt Templates & Fixed Strings
===========================================
Centralised prompt management for the product assistant.  All prompts
and sentinel strings live here so they can be versioned and reviewed
independently of application logic.

Exports
-------
PRODUCT_QA_PROMPT_TEMPLATE, NO_CONTEXT_SENTINEL, MISSING_PRODUCT_TEXT,
NO_ANSWER_FALLBACK, STOP_SEQUENCE.
"""

# ══════════════════════════════════════════════════════════════════════
#  GROUNDING PROMPT
# ══════════════════════════════════════════════════════════════════════
# Placeholders: {context}, {question}

PRODUCT_QA_PROMPT_TEMPLATE: str = """You are a helpful product assistant. Answer the following question based on the product information provided.

Product Information:
{context}

Question: {question}

Provide a helpful, accurate answer based only on the product information above. If the information doesn't contain relevant details to answer the question, politely say so."""


# ══════════════════════════════════════════════════════════════════════
#  SENTINELS
# ══════════════════════════════════════════════════════════════════════

# Context used when the vector search returns no hits.
NO_CONTEXT_SENTINEL: str = "No relevant product information found."

# Stand-in for a hit whose stored metadata has no text.
MISSING_PRODUCT_TEXT: str = "No product text available"

# Returned when the model produces an empty completion.
NO_ANSWER_FALLBACK: str = "No answer generated."

# Keeps the model from writing further dialogue turns.
STOP_SEQUENCE: str = "\n\nHuman:"
