# Automatically load all models so metadata knows them
from koperasi.models.finance_transaction_model import FinanceTransaction
from koperasi.models.installment_payment_model import InstallmentPayment
from koperasi.models.loan_model import Loan
from koperasi.models.system_settings_model import SystemSetting
