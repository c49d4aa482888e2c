from app.schemas.auth import Token, UserCreate, UserLogin, UserResponse
from app.schemas.agreements import AgreementResponse, AgreementWithAccess, AuditEntryResponse
from app.schemas.bookings import BookingCreate, BookingConfirmResponse
