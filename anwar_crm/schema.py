"""
Declared sheet schemas for the Anwar sales CRM.

The header order of each sheet is its wire format: intake handlers write rows
positionally in this order and the migration pipeline validates live headers
against it.
"""

# ============================================================
#                    SHEET NAMES
# ============================================================

DEMAND_GENERATION_REQUESTS = "Demand Generation Requests"
RETAILER_POINT_REQUESTS = "Retailer Point Requests"
IHB_APPROVALS = "IHB Approvals"
POTENTIAL_SITE_APPROVALS = "Potential Site Approvals"
ORDERS = "Orders"
DISPUTES = "Disputes"
CRM_APPROVALS = "CRM Approvals"
VISITS = "Visits"
VISIT_UPDATES = "Visit Updates"
PROJECT_UPDATE = "Project Update"
EMPLOYEES = "Employees"
LOCATION_MAP = "Location Map"


# ============================================================
#                    MOVED FIELDS
# ============================================================
# Construction details live on the potential site, not on each order.

MOVED_ORDER_FIELDS = [
    "Start Building",
    "End Building",
    "Project Address",
    "Estimated Quantity",
    "Delivery Timeline",
    "Custom Timeline",
]


# ============================================================
#                    COLUMN ORDERS
# ============================================================

SCHEMAS = {
    DEMAND_GENERATION_REQUESTS: [
        "Timestamp", "Request ID", "Email Address", "Territory", "Bazaar", "Area",
        "Reason", "Business Unit", "Status", "BD Incharge Notes", "Approval Date", "Notes",
    ],
    RETAILER_POINT_REQUESTS: [
        "Timestamp", "Request ID", "Email Address", "Territory Name", "Location",
        "Select Company", "Status", "ASM Notes", "Approval Date", "Notes",
    ],
    IHB_APPROVALS: [
        "Timestamp", "Submission ID", "Email Address", "IHB Name", "IHB Email",
        "Mobile Number", "NID Number", "Address", "WhatsApp Number", "NID Upload Link",
        "Additional Notes", "Status", "IHB ID", "Approval Date", "CRM Notes",
    ],
    POTENTIAL_SITE_APPROVALS: [
        "Timestamp", "Email Address", "Site Name", "Address", "Lat", "Long",
        "IHB ID", "IHB Name",
        *MOVED_ORDER_FIELDS,
        "Potential Site ID", "Status", "Engineer ID", "Engineer Name", "Partner ID",
        "Partner Name", "Assignment Date", "Notes",
    ],
    ORDERS: [
        "Timestamp", "Order ID", "Potential Site ID", "Order Type", "Submitter Email",
        "Special Instructions", "Engineer Required", "Partner Required",
        "Delivery Note Link", "Site Images Link", "Additional Docs Link", "Status",
        "Territory", "Assigned Engineer ID", "Assigned Partner ID", "Processing Notes",
    ],
    DISPUTES: [
        "Timestamp", "Dispute ID", "Order ID", "Submitter Email", "Reason", "Status",
    ],
    CRM_APPROVALS: [
        "Timestamp", "Email Address", "Contractor Name", "Bkash Number",
        "Contact Number", "NID No", "NID Upload", "Submission ID", "Status", "Notes",
        "Partner ID", "Partner Type", "WhatsApp Number", "Approval Date",
    ],
    VISITS: [
        "Timestamp", "Visit ID", "Email Address", "Type of Visit", "Territory",
        "Type of Client", "Client Name", "Client Phone Number", "Client Address",
        "Visit Purpose/Notes", "Upload Image Link", "Status", "Follow-up Required", "Notes",
    ],
    VISIT_UPDATES: [
        "Timestamp", "Visit Update ID", "Email Address", "Type of Visit",
        "Type of Client", "Client ID", "User Order ID", "Territory", "Upload Image Link",
        "Client Name", "Client Phone Number", "Status", "Notification Sent To", "Remarks",
    ],
    PROJECT_UPDATE: [
        "Timestamp", "Email Address", "Project ID", "Site Engineer ID", "Partner ID",
        "Delivery Method", "Reward Eligible", "Status", "Notes", "Submission ID",
        "Project Name", "Project Address", "Project Lat", "Project Long",
        "Project Status", "Engineer Name", "Engineer ID", "Partner Name",
        "Assigned Partner ID",
    ],
    EMPLOYEES: [
        "Employee ID", "Employee Name", "Role", "Email", "Contact Number",
        "WhatsApp Number", "bKash Number", "NID No", "Status", "Hire Date", "Company",
        "Territory", "Area", "Zone", "District", "New Area", "New Territory", "Bazaar",
        "Upazilla", "BD Territory", "CRO Territory", "Business Unit", "Legacy ID", "Notes",
    ],
    LOCATION_MAP: [
        "Zone", "District", "Area", "Territory", "Bazaar", "Upazilla", "BD Territory",
        "CRO Territory", "Business Unit", "Status",
    ],
}

# Orders layout before construction details moved to the potential site
LEGACY_ORDERS = [
    "Timestamp", "Order ID", "Potential Site ID", "Order Type", "Submitter Email",
    *MOVED_ORDER_FIELDS,
    "Special Instructions", "Engineer Required", "Partner Required",
    "Delivery Note Link", "Site Images Link", "Additional Docs Link", "Status",
    "Territory", "Assigned Engineer ID", "Assigned Partner ID", "Processing Notes",
]


# ============================================================
#                    STATUS VALUES
# ============================================================

STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
