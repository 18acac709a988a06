"""jitr_shared — Shared layer for the JITR (Just-In-Time Registration) Lambdas.

Provides:
    - Dealer contract and the two onboarding dealers (CA registration,
      device activation)
    - pydantic schema gates for every AWS IoT / verifier response
    - Lazy-singleton boto3 clients (IoT, S3, Lambda)
    - HTTP response helpers and the LimitedLambdaHandler boundary wrapper
    - CA / verification certificate generation
"""

__version__ = "1.0.0"
