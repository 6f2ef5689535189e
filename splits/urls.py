from django.urls import path

from . import views

urlpatterns = [
    path('receipts/', views.create_receipt, name='create_receipt'),
    path('receipts/recent/', views.recent_receipts, name='recent_receipts'),
    path('receipts/<str:client_receipt_id>/archive/', views.archive_receipt, name='archive_receipt'),
    path('receipts/<str:client_receipt_id>/unarchive/', views.unarchive_receipt, name='unarchive_receipt'),
    path('receipts/<str:client_receipt_id>/destroy/', views.destroy_receipt, name='destroy_receipt'),

    path('r/<str:share_code>/', views.get_receipt, name='get_receipt'),
    path('r/<str:share_code>/join/', views.join_receipt, name='join_receipt'),
    path('r/<str:share_code>/live/', views.live_snapshot, name='live_snapshot'),
    path('r/<str:share_code>/stream/', views.settlement_stream, name='settlement_stream'),
    path('r/<str:share_code>/claims/', views.adjust_claim, name='adjust_claim'),
    path('r/<str:share_code>/submission/', views.set_submission, name='set_submission'),
    path('r/<str:share_code>/display-name/', views.update_display_name, name='update_display_name'),
    path('r/<str:share_code>/participants/<str:participant_key>/remove/',
         views.remove_participant, name='remove_participant'),
    path('r/<str:share_code>/finalize/', views.finalize_settlement, name='finalize_settlement'),
    path('r/<str:share_code>/payment-intent/', views.mark_payment_intent, name='mark_payment_intent'),
    path('r/<str:share_code>/participants/<str:participant_key>/confirm-payment/',
         views.confirm_payment, name='confirm_payment'),

    path('me/payment-profile/', views.update_payment_profile, name='update_payment_profile'),
    path('me/migrate-guest/', views.migrate_guest, name='migrate_guest'),
]
