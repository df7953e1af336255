"""
Clinics app.

Clinics are the merchants collecting payments; patients belong to exactly
one clinic. The Patient Resolver (clinics.services) finds or creates the
patient behind a payment from the contact details carried by the event.
"""
