from momentum.schemas.envelope import ApiEnvelope, LoginData, MeData, RegisterData

__all__ = ["ApiEnvelope", "LoginData", "MeData", "RegisterData"]
