from .models import (
    User, UserRole, UserSession, Subject, Topic, Note, Enrollment, UserSubjectSelection,
    AiCreditRecord, AiChatMessage, DownloadLog,
    AppRoleEnum, GradeLevelEnum, StreamEnum, MediumEnum, TierEnum, ChatRoleEnum, ADMIN_ROLES
)
