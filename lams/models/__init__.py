"""
SQLAlchemy models
"""
from lams.core.database import Base
# Import all models here so Alembic can detect them
from lams.models.compensation import (Award, AwardMode,  # noqa: F401
                                      AwardStatus, Valuation, ValuationBasis,
                                      ValuationFactor)
from lams.models.notification import (LandNotification,  # noqa: F401
                                      NotificationStatus, NotificationType,
                                      notification_parcels)
from lams.models.objection import Objection, ObjectionStatus  # noqa: F401
from lams.models.parcel import (Owner, Parcel, ParcelOwner,  # noqa: F401
                                ParcelStatus)
from lams.models.possession import (GpsSource, Possession,  # noqa: F401
                                    PossessionEvidence, PossessionStatus)
from lams.models.scheme import (Application, ApplicationStatus,  # noqa: F401
                                Draw, DrawStatus, Party, Property,
                                PropertyStatus, Scheme, SchemeCategory,
                                SchemeStatus, scheme_inventory)
from lams.models.sequence import Sequence  # noqa: F401
from lams.models.service_request import (ServiceRequest,  # noqa: F401
                                         ServiceRequestStatus,
                                         ServiceRequestType)
from lams.models.sia import (FeedbackStatus, HearingStatus,  # noqa: F401
                             Sia, SiaFeedback, SiaHearing, SiaReport,
                             SiaStatus)
from lams.models.workflow_event import WorkflowEvent  # noqa: F401
