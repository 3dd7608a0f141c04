# -- einvoice.py (Uyumsoft e-Fatura köprüsü: SOAP passthrough + istemci) --
# forward(): tarayıcının hazırladığı zarfı SOAPAction ile olduğu gibi iletir (/api/uyumsoft)
# UyumsoftClient: zarfı kendisi kurar (zeep WS-Security + lxml), sunucu tarafı çağrılar için
import logging
import time
import uuid
from datetime import date, datetime
from typing import Iterable, Mapping, Optional

import requests
from lxml import etree
from lxml.builder import ElementMaker
from zeep.transports import Transport
from zeep.wsse.username import UsernameToken

from katip.config import Settings

logger = logging.getLogger(__name__)

TEMPURI = "http://tempuri.org"
SOAP_ENV = "http://schemas.xmlsoap.org/soap/envelope/"
UBL_INVOICE = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
UBL_CAC = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
UBL_CBC = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

# action -> servis arayüzü
SOAP_ACTIONS = {
    "SendInvoice": "IIntegration",
    "SendInvoiceWithUserInfo": "IBasicIntegration",
    "GetUserList": "IBasicIntegration",
    "SaveAsDraft": "IBasicIntegration",
    "WhoAmI": "IBasicIntegration",
    "GetInvoiceStatus": "IIntegration",
    "GetInvoiceView": "IBasicIntegration",
}

S = ElementMaker(namespace=SOAP_ENV, nsmap={"s": SOAP_ENV})
T = ElementMaker(namespace=f"{TEMPURI}/", nsmap={None: f"{TEMPURI}/"})
UBL_NSMAP = {None: UBL_INVOICE, "cac": UBL_CAC, "cbc": UBL_CBC}
CAC = ElementMaker(namespace=UBL_CAC, nsmap=UBL_NSMAP)
CBC = ElementMaker(namespace=UBL_CBC, nsmap=UBL_NSMAP)

# canlı satıcı bilgisi verilmezse test ortamının örnek satıcısı
TEST_SUPPLIER = {
    "tax_number": "1111111111", "name": "Test Satıcı A.Ş.", "address": "Test Mah. Test Cad. No:1",
    "district": "Kadıköy", "city": "İstanbul", "tax_office": "Kadıköy VD",
}


class EInvoiceError(Exception):
    def __init__(self, message, status=None, response=None):
        super().__init__(message)
        self.status = status
        self.response = response


def soap_action(action:str)->str:
    try: return f"{TEMPURI}/{SOAP_ACTIONS[action]}/{action}"
    except KeyError: raise EInvoiceError("Invalid action", status=400)

def soap_headers(action:str)->dict:
    return {"Content-Type": "text/xml; charset=utf-8", "SOAPAction": f'"{soap_action(action)}"'}


def forward(action:str, envelope:str, endpoint:str, http=None, timeout:float=30.0)->requests.Response:
    http = http or requests
    headers = soap_headers(action)
    logger.info("uyumsoft %s -> %s", action, endpoint)
    r = http.post(endpoint, data=envelope.encode("utf-8"), headers=headers, timeout=timeout)
    logger.debug("uyumsoft response %s: %s", r.status_code, r.text)
    return r


# --- yanıt ---
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)

def _local(name:str)->str: return etree.QName(name).localname.lower()

def _result_attrs(root)->dict:
    # IsSucceded taşıyan ilk eleman; yoksa belgedeki ilk eşleşmeler
    found = {}
    for el in root.iter(etree.Element):
        attrs = {_local(k): v for k, v in el.attrib.items()}
        if "issucceded" in attrs: return attrs
        for k, v in attrs.items(): found.setdefault(k, v)
    return found

def parse_soap_response(xml)->dict:
    """IsSucceded/Message/UUID/Id attributes of Uyumsoft's result element."""
    if not xml:
        return {"success": False, "error": "Empty response", "full_response": xml}
    try:
        root = etree.fromstring(xml.encode("utf-8") if isinstance(xml, str) else xml, _PARSER)
    except etree.XMLSyntaxError:
        logger.warning("uyumsoft response is not XML")
        return {"success": False, "error": "Parse error", "full_response": xml}
    a = _result_attrs(root)
    if a.get("issucceded", "").lower() == "true":
        return {"success": True, "uuid": a.get("uuid"), "invoice_id": a.get("id"), "message": a.get("message") or "Success"}
    return {"success": False, "error": a.get("message") or "Unknown error", "full_response": xml}


# --- UBL fatura ---
def _money(v:float)->str: return f"{v:.2f}"

def _issue_date(v)->str:
    if isinstance(v, datetime): return v.date().isoformat()
    if isinstance(v, date): return v.isoformat()
    return datetime.fromisoformat(str(v).replace("Z", "+00:00")).date().isoformat()

def invoice_totals(items:Iterable[Mapping])->dict:
    items = list(items)
    lines = [i["quantity"]*i["unit_price"] for i in items]
    taxes = [i["quantity"]*i["unit_price"]*i.get("tax_rate", 20)/100 for i in items]
    line_total, tax_total = round(sum(lines), 2), round(sum(taxes), 2)
    return {"line_total": line_total, "tax_total": tax_total, "grand_total": round(line_total+tax_total, 2)}

def _party(tag:str, p:Mapping, defaults:Mapping):
    g = lambda k: str(p.get(k) or defaults.get(k) or "")
    return getattr(CAC, tag)(CAC.Party(
        CAC.PartyIdentification(CBC.ID(g("tax_number"), schemeID="VKN")),
        CAC.PartyName(CBC.Name(g("name"))),
        CAC.PostalAddress(CBC.StreetName(g("address")), CBC.CitySubdivisionName(g("district")),
                          CBC.CityName(g("city")), CAC.Country(CBC.Name("Türkiye"))),
        CAC.PartyTaxScheme(CAC.TaxScheme(CBC.Name(g("tax_office")))),
    ))

CUSTOMER_DEFAULTS = {"tax_number": "1234567890", "address": "Test Adres", "district": "Test İlçe",
                     "city": "Test İl", "tax_office": "Test VD"}

def build_invoice(invoice:Mapping, items:list, customer:Mapping, supplier:Optional[Mapping]=None):
    """UBL-TR TICARIFATURA / SATIS document in TRY, one InvoiceLine per item."""
    t = invoice_totals(items)
    cur = {"currencyID": "TRY"}
    doc = etree.Element(f"{{{UBL_INVOICE}}}Invoice", nsmap=UBL_NSMAP)
    doc.extend([
        CBC.ProfileID("TICARIFATURA"), CBC.ID(str(invoice["invoice_no"])), CBC.UUID(str(uuid.uuid4())),
        CBC.IssueDate(_issue_date(invoice["invoice_date"])), CBC.InvoiceTypeCode("SATIS"),
        CBC.DocumentCurrencyCode("TRY"), CBC.LineCountNumeric(str(len(items))),
        _party("AccountingSupplierParty", supplier or TEST_SUPPLIER, TEST_SUPPLIER),
        _party("AccountingCustomerParty", customer, CUSTOMER_DEFAULTS),
        CAC.TaxTotal(
            CBC.TaxAmount(_money(t["tax_total"]), **cur),
            CAC.TaxSubtotal(CBC.TaxableAmount(_money(t["line_total"]), **cur), CBC.TaxAmount(_money(t["tax_total"]), **cur),
                            CAC.TaxCategory(CAC.TaxScheme(CBC.Name("KDV")))),
        ),
        CAC.LegalMonetaryTotal(
            CBC.LineExtensionAmount(_money(t["line_total"]), **cur), CBC.TaxExclusiveAmount(_money(t["line_total"]), **cur),
            CBC.TaxInclusiveAmount(_money(t["grand_total"]), **cur), CBC.PayableAmount(_money(t["grand_total"]), **cur),
        ),
    ])
    for n, it in enumerate(items, 1):
        doc.append(CAC.InvoiceLine(
            CBC.ID(str(n)), CBC.InvoicedQuantity(str(it["quantity"]), unitCode=str(it.get("unit") or "C62")),
            CBC.LineExtensionAmount(_money(it["quantity"]*it["unit_price"]), **cur),
            CAC.Item(CBC.Name(str(it["product_name"]))),
            CAC.Price(CBC.PriceAmount(_money(it["unit_price"]), **cur)),
        ))
    return doc


# --- istemci ---
class UyumsoftClient:
    def __init__(self, username, password, endpoint, is_test=True, http=None, timeout=30.0):
        self.username = username
        self.password = password
        self.endpoint = endpoint
        self.is_test = is_test
        # session verilmezse Transport kendi session'ını açar, close() kapatır
        self._owns_session = http is None
        self.transport = Transport(session=http, operation_timeout=timeout)
        self.wsse = UsernameToken(username=username, password=password, use_digest=False)

    @classmethod
    def from_settings(cls, settings:Settings, http=None):
        return cls(settings.uyumsoft_username, settings.uyumsoft_password, settings.uyumsoft_endpoint,
                   is_test=settings.uyumsoft_test_mode, http=http, timeout=settings.uyumsoft_timeout)

    def close(self):
        if self._owns_session: self.transport.session.close()

    def __enter__(self): return self
    def __exit__(self, *exc): self.close()

    def _user_info(self, user_tag="UserName"):
        return T.userInformation(getattr(T, user_tag)(self.username), T.Password(self.password))

    def envelope(self, body, secured:bool=False):
        env = S.Envelope(S.Body(body))
        if secured: env, _ = self.wsse.apply(env, {})
        return env

    def call(self, action:str, envelope)->str:
        logger.info("uyumsoft %s -> %s", action, self.endpoint)
        r = self.transport.post_xml(self.endpoint, envelope, soap_headers(action))
        if not r.ok:
            raise EInvoiceError("Uyumsoft API error", status=r.status_code, response=r.text)
        return r.text

    def who_am_i(self)->dict:
        return parse_soap_response(self.call("WhoAmI", self.envelope(T.WhoAmI(self._user_info()), secured=True)))

    def get_invoice_status(self, invoice_uuid:str)->dict:
        if self.is_test:
            body = T.GetInvoiceView(self._user_info("Username"), T.UUID(invoice_uuid))
            return parse_soap_response(self.call("GetInvoiceView", self.envelope(body)))
        body = T.GetInvoiceStatus(T.uuid(invoice_uuid))
        return parse_soap_response(self.call("GetInvoiceStatus", self.envelope(body, secured=True)))

    def send_invoice(self, invoice:Mapping, items:list, customer:Mapping, supplier:Optional[Mapping]=None)->dict:
        """Save the invoice as a draft on the portal (SaveAsDraft); returns the parsed result."""
        ubl = build_invoice(invoice, items, customer, supplier)
        local_id = f"INV-{int(time.time()*1000)}"
        body = T.SaveAsDraft(self._user_info(), T.invoices(T.InvoiceInfo(T.LocalDocumentId(local_id), T.Invoice(ubl))))
        logger.info("uyumsoft draft %s for invoice %s", local_id, invoice["invoice_no"])
        return parse_soap_response(self.call("SaveAsDraft", self.envelope(body, secured=True)))
