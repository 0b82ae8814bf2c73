"""Semantic match oracle implementations.

* :class:`~src.oracles.static_oracle.StaticOracle` replays recorded
  decisions deterministically.
* :class:`~src.oracles.llm_oracle.LLMOracle` asks a hosted Anthropic model and
  :class:`~src.oracles.llm_oracle.OpenAIOracle` an OpenAI one;
  :func:`~src.oracles.llm_oracle.create_oracle` picks by provider setting.
"""
