# buildapp/models/__init__.py
# Import all models so SQLAlchemy can resolve string relationships and
# Base.metadata sees every table.

from buildapp.db.base_class import Base
from buildapp.models.supplier import Supplier
from buildapp.models.catalog_entry import CatalogEntry
from buildapp.models.project import Project
from buildapp.models.rfq import RFQ
from buildapp.models.rfq_recipient import RFQRecipient
from buildapp.models.offer import Offer
from buildapp.models.offer_history import OfferHistory
from buildapp.models.order import Order
from buildapp.models.order_status_history import OrderStatusHistory
from buildapp.models.delivery_event import DeliveryEvent
from buildapp.models.confirmation import Confirmation
from buildapp.models.rental_tool import RentalTool
from buildapp.models.rental_booking import RentalBooking
from buildapp.models.rental_handover import RentalHandover
from buildapp.models.rental_return import RentalReturn
