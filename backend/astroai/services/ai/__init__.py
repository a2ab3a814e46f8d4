"""
Conversational AI services.

Rule-based intent classification and templated response synthesis, with an
optional OpenAI-compatible completion provider behind a capability flag.
Template replies are always available; the provider only ever improves
wording and never decides whether a reply is produced.
"""
