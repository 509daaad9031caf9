"""Outbound HTTP: retrying client and the API error taxonomy.

Every domain call goes through ResilientHttpClient and comes back as
Ok(body) or Err(ApiError); errors are classified once, here.
"""
