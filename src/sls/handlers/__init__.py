"""
Lambda front controllers.

Each runner adapts one trigger kind to a feature handler:

1. ``runner``: deadline enforcement and panic recovery shared by all triggers
2. ``apigw_handler``: API Gateway proxy integrations
3. ``cognito_handler``: Cognito user pool pre sign-up triggers
"""
